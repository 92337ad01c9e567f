"""常量定义：集中管理 HTTP 状态码、存储布局与回收站/分享的默认值。"""

HTTP_STATUS_OK = 200
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_CONFLICT = 409
HTTP_STATUS_GONE = 410
HTTP_STATUS_UNPROCESSABLE_ENTITY = 422
HTTP_STATUS_INTERNAL_SERVER_ERROR = 500
HTTP_STATUS_NOT_IMPLEMENTED = 501

ACCESS_TOKEN_TYPE = "bearer"

# 每个用户在存储根、回收站根与映射根下的子目录名
USER_DIR_TEMPLATE = "user_{user_id}"

# 恢复时用于避让同名条目的后缀：report_恢复1.pdf、report_恢复2.pdf ...
RESTORE_SUFFIX = "_恢复"

DEFAULT_RECYCLE_RETENTION_DAYS = 30
DEFAULT_SHARE_EXPIRE_HOURS = 24

# 分享令牌随机字节数（hex 编码后为 32 个字符）
SHARE_TOKEN_BYTES = 16

MAX_NAME_LENGTH = 255
DEFAULT_CONTENT_TYPE = "application/octet-stream"
