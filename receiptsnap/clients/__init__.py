from receiptsnap.clients.fcm import AccessTokenState, FcmClient, build_renewal_message  # noqa: F401
from receiptsnap.clients.fireworks import ExtractionOutcome, FireworksClient  # noqa: F401
