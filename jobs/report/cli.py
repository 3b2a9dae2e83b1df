"""CLI entry point for the shift report job."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional

from common.config import get_settings
from historian.core.domain.record import now_ms
from historian.storage import StoreInitError, TelemetryStore

from .assembler import ReportAssembler
from .config import ReportConfig
from .renderer import ExcelReportRenderer

logger = logging.getLogger(__name__)


def parse_config(argv: Optional[list[str]] = None) -> ReportConfig:
    settings = get_settings()

    p = argparse.ArgumentParser(description="Shift report (average temperature + pump downtime)")
    p.add_argument("--db-path", default=settings.db_path)
    p.add_argument("--report-dir", default=settings.report_dir)
    p.add_argument("--window-hours", type=float, default=settings.sample_window_hours)
    p.add_argument("--sleep-seconds", type=float, default=settings.sample_window_hours * 3600)
    p.add_argument("--once", action="store_true", help="run a single report and exit")
    args = p.parse_args(argv)

    return ReportConfig(
        db_path=args.db_path,
        report_dir=args.report_dir,
        window_hours=args.window_hours,
        sleep_seconds=args.sleep_seconds,
        once=bool(args.once),
    )


def main(argv: Optional[list[str]] = None) -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    cfg = parse_config(argv)
    logger.info("Report job started")
    logger.info("Config: window=%.1fh, sleep=%.1fs, once=%s", cfg.window_hours, cfg.sleep_seconds, cfg.once)

    try:
        store = TelemetryStore.open(cfg.db_path)
    except StoreInitError as e:
        logger.critical("Report generation failed: %s", e)
        sys.exit(1)

    assembler = ReportAssembler(store, ExcelReportRenderer(cfg.report_dir))
    try:
        while True:
            try:
                assembler.run(now_ms(), cfg.window_hours)
                if cfg.once:
                    return
                logger.info("Iteración completada, esperando %.1fs...", cfg.sleep_seconds)
                time.sleep(cfg.sleep_seconds)
            except Exception as e:
                if cfg.once:
                    logger.critical("Report generation failed: %s", e)
                    sys.exit(1)
                logger.error("Error en iteración: %s", e)
                logger.info("Continuando con siguiente iteración...")
                time.sleep(cfg.sleep_seconds)
    finally:
        store.close()


if __name__ == "__main__":
    main()
