from lms_portal.client.api_client import ApiClient
from lms_portal.client.forms import FormValidationError, form_fields, validate_user_form
from lms_portal.client.query_cache import InlineExecutor, QueryCache, make_key
from lms_portal.client.transport import ClientError, HttpError, HttpTransport, NetworkError
