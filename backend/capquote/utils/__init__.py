from .json import dumps, loads
from .errors import error_response
