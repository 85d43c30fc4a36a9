from __future__ import annotations

import json
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from adboard.infra.logging import configure_logging  # noqa: E402
from adboard.infra.migrate import run_upgrade_head  # noqa: E402
from adboard.services.provisioning_service import ProvisioningService  # noqa: E402


def main() -> int:
    configure_logging()
    if os.getenv("PROVISION_SKIP_MIGRATIONS", "0").strip().lower() not in {"1", "true", "yes"}:
        run_upgrade_head()
    report = ProvisioningService().ensure_defaults()
    print(json.dumps(report.as_dict(), sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
