"""
Roda uma rotina agendada uma vez, fora do worker.

    python -m barberflow.scripts.run_jobs complete-past
    python -m barberflow.scripts.run_jobs daily-reminders --hour 8
"""

import argparse
import logging

from sqlmodel import Session

from barberflow.database import engine
from barberflow.services import reminders, sweeps
from barberflow.services.whatsapp import get_whatsapp_client

JOBS = ("complete-past", "cancel-unpaid", "expire-subscriptions", "daily-reminders", "return-reminders")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Executa uma rotina agendada do barberflow")
    parser.add_argument("job", choices=JOBS)
    parser.add_argument("--hour", type=int, default=8, help="turno do lembrete diário (8 ou 13)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    with Session(engine) as session:
        if args.job == "complete-past":
            result = sweeps.complete_past_bookings(session)
        elif args.job == "cancel-unpaid":
            result = sweeps.cancel_unpaid_bookings(session)
        elif args.job == "expire-subscriptions":
            result = sweeps.expire_lapsed_subscriptions(session)
        elif args.job == "daily-reminders":
            result = reminders.send_daily_reminders(session, get_whatsapp_client(), args.hour)
        else:
            result = reminders.send_return_reminders(session, get_whatsapp_client())

    print(f"{args.job}: {result}")


if __name__ == "__main__":
    main()
