"""Collection and field names shared with the rest of the CMDB."""

TABLE_HOST = "cc_HostBase"
TABLE_SET = "cc_SetBase"
TABLE_MODULE = "cc_ModuleBase"
TABLE_MODULE_HOST_CONFIG = "cc_ModuleHostConfig"
TABLE_SET_TEMPLATE = "cc_SetTemplate"
TABLE_PLAT = "cc_PlatBase"

FIELD_ID = "id"
BIZ_ID = "bk_biz_id"
HOST_ID = "bk_host_id"
SET_ID = "bk_set_id"
SET_NAME = "bk_set_name"
MODULE_ID = "bk_module_id"
MODULE_NAME = "bk_module_name"
CLOUD_ID = "bk_cloud_id"
SET_TEMPLATE_ID = "set_template_id"
SET_TEMPLATE_VERSION = "set_template_version"
SET_TEMPLATE_VERSION_LEGACY = "version"

DEFAULT_STEP = 5000
