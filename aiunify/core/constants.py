"""
对外可见的消息文本

这些字符串会出现在回调的 on_error 消息中，属于对外契约，修改需谨慎。
"""

INVALID_JSON_ERROR = "Invalid JSON Error: %s"
REQUEST_FAILED = "Request failed."
HTTP_ERROR = "HTTP Error, %d: %s"
HTTP_ERROR_TYPE = "HTTP Error, %s (Type: %s)"
HTTP_ERROR_FULL = "HTTP Error, %s (Code: %s; Type: %s)"
HTTP_STATUS_ERROR = "HTTP %d error"
TIMEOUT_ERROR = "Timeout (HTTP %d): %s"

STREAM_NOT_SUPPORTED = "Stream operations is not supported by %s driver"
IMAGE_NOT_SUPPORTED = "Image generation is not supported by %s driver"
JSON_NOT_SUPPORTED = "JSON Structured generation is not supported by %s driver"
DECODE_MODE_NOT_SUPPORTED = "Decode mode not supported."

EVENT_HANDLER_FAILED = "Event handler failed: %s: %s"

MISSING_MODEL = "Model parameter is missing. Please set it in the driver parameters."
MISSING_API_KEY = "APIKey parameter is missing. Please set it in the driver parameters."
MISSING_BASE_URL = "Base URL is missing. Please set it in the driver parameters."
MISSING_PROMPT = "Prompt is empty."
MISSING_ENDPOINT = "No endpoint is assigned."
MISSING_REQUEST = "Request Object is not assigned."
MISSING_NAME = "Name is empty."
MISSING_MODELFILE = "Modelfile is empty."
MISSING_INPUT = "Input is empty."
NO_MESSAGE_CONTENT = "No valid message content in response."

DRIVER_EMPTY_NAME = "Driver name cannot be empty"
DRIVER_NOT_REGISTERED = "AI Driver not registered: %s"

MODELS_FOUND = "%d models found."
CONNECTION_FAILED = "Failed to connect to the AI provider."

DATASET_NOT_ASSIGNED = "PopulateDataSet: DataSet is not assigned."
DATASET_NIL_JSON = "PopulateDataSet: input JSON object is nil."
DATASET_IMPORT_FAILED = "PopulateDataSet: data import failed : %s"
