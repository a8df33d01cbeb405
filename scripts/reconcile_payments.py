#!/usr/bin/env python3
"""List succeeded payments whose booking was never marked paid, and optionally settle them.

Usage:
    python scripts/reconcile_payments.py            # report only
    python scripts/reconcile_payments.py --repair   # settle every anomaly
"""
import argparse
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from styledecor import create_app
from styledecor.errors import DomainError
from styledecor.extensions import get_payment_gateway
from styledecor.services.payments import PaymentReconciliation

def reconcile(repair: bool) -> int:
    app = create_app()

    with app.app_context():
        reconciliation = PaymentReconciliation(get_payment_gateway(), currency=app.config["PAYMENT_CURRENCY"])
        anomalies = reconciliation.find_anomalies()

        if not anomalies:
            print("No reconciliation anomalies found.")
            return 0

        print(f"Found {len(anomalies)} payment(s) with an unsettled booking")
        failures = 0
        for payment in anomalies:
            print(f"  payment {payment.payment_id} -> booking {payment.booking_id} ({payment.stripe_intent_id})")
            if not repair:
                continue
            try:
                reconciliation.repair(payment.payment_id)
                print("    settled")
            except DomainError as exc:
                failures += 1
                print(f"    failed: {exc.code}: {exc.message}")

        return 1 if failures else 0

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--repair", action="store_true", help="settle each anomalous booking")
    args = parser.parse_args()
    sys.exit(reconcile(args.repair))
