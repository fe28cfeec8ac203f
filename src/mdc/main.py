from __future__ import annotations

import logging
from datetime import datetime

from mdc.application.container import build_container
from mdc.config import get_app_paths
from mdc.domain.errors import AppError
from mdc.logging_config import setup_logging

log = logging.getLogger("mdc.main")


def main() -> None:
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    try:
        app = build_container(paths)

        resumed = app.checkout.replay_pending()
        if resumed:
            log.info("checkouts_resumed count=%s", len(resumed))

        pnl = app.reporting.profit_and_loss()
        out = app.reporting.export_ledger_excel(paths.exports_dir / f"ledger_{datetime.now():%Y%m%d_%H%M%S}.xlsx")
    except AppError as e:
        log.error("startup_failed code=%s error=%s", e.code, e)
        raise SystemExit(f"MDC PRO could not start: {e}") from e

    log.info("startup_report path=%s income=%s net=%s", out, pnl.total_income, pnl.net_profit)
    print(f"Income: £{pnl.total_income}  Net profit: £{pnl.net_profit}  Tax reserve: £{pnl.tax_provision}")
    print(f"Ledger written to {out}")


if __name__ == "__main__":
    main()
