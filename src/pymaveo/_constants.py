"""Internal constants shared across the library.

These identify the Maveo cloud infrastructure (Cognito pools and the IoT
endpoint); they are not user credentials.
"""

AWS_REGION = "eu-central-1"

# Cognito user pool used for username/password login.
USER_POOL_ID = "eu-central-1_ozbW8rTAj"
CLIENT_ID = "34eruqhvvnniig5bccrre6s0ck"

# Cognito identity pool that hands out temporary AWS credentials.
IDENTITY_POOL_ID = "eu-central-1:b3ebe605-53c9-463e-8738-70ae01b042ee"

IOT_HOST = "eu-central-1.iot-prod.marantec-cloud.de"
IOT_PORT = 443
IOT_PATH = "/mqtt"
IOT_SERVICE = "iotdata"

AMZ_JSON_CONTENT_TYPE = "application/x-amz-json-1.1"
TARGET_INITIATE_AUTH = "AWSCognitoIdentityProviderService.InitiateAuth"
TARGET_GET_ID = "AWSCognitoIdentityService.GetId"
TARGET_GET_CREDENTIALS = "AWSCognitoIdentityService.GetCredentialsForIdentity"

# ------------------------------------------------------------------
# Device topics and payload fields
# ------------------------------------------------------------------

RESPONSE_TOPIC = "{device_id}/rsp"
COMMAND_TOPIC = "{device_id}/cmd"

STATUS_FIELD = "StoA_s"
DOOR_FIELD = "AtoS_g"
LIGHT_FIELD = "AtoS_l"
STATUS_REQUEST_FIELD = "AtoS_s"

# ------------------------------------------------------------------
# Timing and retry defaults (seconds)
# ------------------------------------------------------------------

DEFAULT_CONNECT_TIMEOUT: float = 30.0
DEFAULT_STATUS_TIMEOUT: float = 10.0
DEFAULT_MAX_RECONNECT_ATTEMPTS = 10
DEFAULT_BASE_RECONNECT_DELAY: float = 1.0
DEFAULT_KEEPALIVE = 60
DEFAULT_HTTP_TIMEOUT: float = 30.0


def cognito_idp_endpoint(region: str) -> str:
    """User pool (identity provider) endpoint for *region*."""
    return f"https://cognito-idp.{region}.amazonaws.com"


def cognito_identity_endpoint(region: str) -> str:
    """Identity pool endpoint for *region*."""
    return f"https://cognito-identity.{region}.amazonaws.com"
