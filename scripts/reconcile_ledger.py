"""ペアリングのポイント合計を監査ログと照合するスクリプト

pairings/{id}.total_points と、監査ログの delta を 0 から積み上げた値を比較する。
不一致が 1 件でもあれば終了コード 1 で終了する（修正は行わない）。

実行方法:
    # Firestore Emulator で検証する場合
    FIRESTORE_EMULATOR_HOST=localhost:8080 python scripts/reconcile_ledger.py

    # 全ペアリング
    python scripts/reconcile_ledger.py

    # 特定ペアリングのみ
    python scripts/reconcile_ledger.py --pairing-id <pairing_id>
"""

from __future__ import annotations

import argparse
import logging
import sys

from mentorship.entrypoints.factory import create_facade
from mentorship.services.facade import MentorshipFacade

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def reconcile(facade: MentorshipFacade, pairing_ids: list[str]) -> int:
    """
    指定ペアリングを照合する。

    Returns:
        不一致（または照合できなかった）ペアリングの件数
    """
    mismatches = 0
    for pairing_id in pairing_ids:
        result = facade.verify_ledger(pairing_id)
        if not result.success:
            logger.error("CHECK FAILED pairing_id=%s: %s", pairing_id, result.error)
            mismatches += 1
            continue
        check = result.value
        if check.consistent:
            logger.info("OK pairing_id=%s total=%d", pairing_id, check.stored_total)
        else:
            logger.error(
                "MISMATCH pairing_id=%s stored=%d replayed=%d",
                pairing_id,
                check.stored_total,
                check.replayed_total,
            )
            mismatches += 1
    return mismatches


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare stored pairing totals against the audit log"
    )
    parser.add_argument(
        "--pairing-id",
        type=str,
        default=None,
        help="Check only this pairing (optional)",
    )
    args = parser.parse_args(argv)

    facade = create_facade()

    if args.pairing_id:
        pairing_ids = [args.pairing_id]
    else:
        result = facade.list_pairings()
        if not result.success:
            logger.error("Could not list pairings: %s", result.error)
            return 1
        pairing_ids = [p.id for p in result.value]
        logger.info("Found %d pairings to check", len(pairing_ids))

    mismatches = reconcile(facade, pairing_ids)
    logger.info("Done: checked=%d, mismatches=%d", len(pairing_ids), mismatches)
    return 1 if mismatches else 0


if __name__ == "__main__":
    sys.exit(main())
