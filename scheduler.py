from mirin import create_app
from mirin.services.payment_service import expire_stale_payments
from mirin.services.rental_service import send_expiration_warnings


def run_periodic_jobs(app):
    """
    Expires payment requests nobody confirmed in time and warns renters
    whose rental ends soon. Meant to run from cron every few minutes.
    """
    with app.app_context():
        app.logger.info("--- STARTING SCHEDULED JOBS ---")
        expired = expire_stale_payments()
        app.logger.info(f"Expired payments: {expired}")
        warned = send_expiration_warnings()
        app.logger.info(f"Expiration warnings sent: {warned}")
        app.logger.info("--- SCHEDULED JOBS FINISHED ---")
        return {'expired_payments': expired, 'expiration_warnings': warned}


if __name__ == "__main__":
    run_periodic_jobs(create_app())
