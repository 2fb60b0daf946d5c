"""
Heat pump data module for Thermia Online.

Provides the REST client, register decoding, status arbitration, alert
reconciliation and the scrape collector.

Note: the CLI lives in the summary_cli submodule; run it via
  python -m thermia_exporter.heatpump.summary_cli
"""
from .alerts import reconcile_alerts
from .api_client import REGISTER_GROUPS, ThermiaApiClient
from .collector import ThermiaCollector
from .readings import decode_registers, summary_to_dict
from .status_arbitration import pick_current_status

__all__: list[str] = [
    "REGISTER_GROUPS",
    "ThermiaApiClient",
    "ThermiaCollector",
    "decode_registers",
    "pick_current_status",
    "reconcile_alerts",
    "summary_to_dict",
]
