from __future__ import annotations

import argparse
import sys

from app.workflow.factory import get_workflow
from services.observability import configure_logging
from services.reconcile import run_reconcile


def main() -> None:
    parser = argparse.ArgumentParser(description="Reconcile invoice and quote status with milestone payments once.")
    parser.add_argument("--invoice-id", action="append", default=None, help="limit to these invoices (repeatable)")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "INFO")

    result = run_reconcile(get_workflow().reconciler, invoice_ids=args.invoice_id)
    summary = result["summary"]

    print("reconcile_run_at:", result["run_at"])
    print(
        "counts:",
        f"checked={summary['checked']}",
        f"transitioned={summary['transitioned']}",
        f"cascade_inconsistent={summary['cascade_inconsistent']}",
        f"errors={summary['errors']}",
    )
    for item in result["items"]:
        if item["category"] != "transitioned":
            print(f"{item['category']}: invoice={item['invoice_id']} {item.get('error', '')}")

    if summary["errors"] or summary["cascade_inconsistent"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
