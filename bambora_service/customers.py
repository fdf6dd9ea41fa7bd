import logging

from bambora_service.exceptions import HardDecline, RemoteProcessorError

logger = logging.getLogger(__name__)


class CustomerIdentityResolver:
    """Maps local customers to Bambora payment profiles.

    Only authenticated customers get a durable profile; the profile's
    customer code is kept on the customer row.
    """

    def __init__(self, db, client):
        self.db = db
        self.client = client

    def resolve(self, owner):
        if owner is None or not owner.is_authenticated:
            return None
        return owner.remote_customer_id or None

    def create_and_bind(self, owner, billing_address, token):
        # Not idempotent: a second call creates a second remote profile.
        try:
            customer_code = self.client.create_customer_profile(billing_address, owner.email, token)
        except RemoteProcessorError as e:
            raise HardDecline(f"Unable to verify the credit card: {e.message}", code=e.code) from e

        owner.remote_customer_id = customer_code
        self.db.add(owner)
        self.db.commit()
        logger.info("Bound customer %s to remote profile", owner.id)
        return customer_code
