"""
conftest.py — Shared pytest fixtures for the window quotation backend test suite.

Engines are stateless, so most fixtures are session-scoped.  Store tests build
their own throwaway SQLite database under ``tmp_path``; the remote quote service
is always driven through ``httpx.MockTransport``, never the network.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def calculator():
    """PricingCalculator with the configured rates (2% transport, 1% loading, 18% tax)."""
    from app.services.costing_engine import PricingCalculator
    return PricingCalculator()


@pytest.fixture(scope="session")
def engine(calculator):
    """QuotationEngine sharing the session calculator."""
    from app.services.window_engine import QuotationEngine
    return QuotationEngine(calculator)


@pytest.fixture(scope="session")
def codec(calculator):
    from app.services.persistence_codec import PersistenceCodec
    return PersistenceCodec(calculator)


@pytest.fixture(scope="session")
def mapper():
    from app.services.drafting.visual_engine import DiagramMapper
    return DiagramMapper()


@pytest.fixture(scope="session")
def report_engine(calculator, codec):
    from app.services.report_engine import ReportEngine
    return ReportEngine(calculator, codec)


# ---------------------------------------------------------------------------
# Sample quotations
# ---------------------------------------------------------------------------

@pytest.fixture
def quotation(engine):
    """
    Fresh draft Q-1001 with one default sliding window (1000 × 1000 mm) and a
    named client, so it is submittable as-is.
    """
    from datetime import date
    from app.models.window_models import ClientInfo
    return engine.new_quotation(
        "Q-1001",
        client_info=ClientInfo(name="Asha Traders", city="Pune", phone="9800000000"),
        on_date=date(2026, 3, 1),
    )


@pytest.fixture
def mixed_quotation(engine, quotation):
    """
    Three windows covering the pattern classes and a manual override:
      1. sliding, 3 panels, pattern 3-sfs, 1200 × 1500 mm, upvc, qty 2
      2. bay, angle 45, bronze double glass, colonial grilles
      3. casement, 2 panels, manual unit price 9999.5
    """
    first = quotation.windows[0]
    engine.update_configuration(quotation, first.id, panels=3, pattern_id="3-sfs")
    engine.update_spec(quotation, first.id, width_mm=1200, height_mm=1500,
                       frame_material="upvc", quantity=2, location="Living room")

    bay = engine.add(quotation)
    engine.change_archetype(quotation, bay.id, "bay")
    engine.update_configuration(quotation, bay.id, angle=45, pattern_id="bay-fcf")
    engine.update_spec(quotation, bay.id, glass_type="double", glass_tint="bronze",
                       grille_style="colonial", weather_sealing=True)

    casement = engine.add(quotation)
    engine.change_archetype(quotation, casement.id, "casement")
    engine.update_configuration(quotation, casement.id, panels=2, hinge="right")
    engine.set_manual_price(quotation, casement.id, "unit_price", 9999.5)
    return quotation


@pytest.fixture
def legacy_record():
    """
    Single-window record as written by older clients: windowSpecs is one flattened
    object, configuration lives in a top-level slidingConfig block, renamed keys.
    """
    return {
        "quotationNumber": "Q-0999",
        "date": "2024-11-05",
        "status": "approved",
        "clientInfo": {"name": "Legacy Client", "city": "Nashik"},
        "selectedWindowType": "Sliding Windows",
        "windowSpecs": {
            "name": "Hall Window",
            "type": "sliding",
            "dimensions": {"width": "1500", "height": 1200},
            "specifications": {
                "frame": "upvc",
                "glassType": "double",
                "grilles": "prairie",
                "weatherStripping": True,
            },
            "pricing": {"quantity": 3},
        },
        "slidingConfig": {"panels": 3, "tracks": 2, "combination": "3-fsf"},
    }
