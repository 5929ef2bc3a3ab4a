"""
iSolarCloud open API endpoint definitions.

Paths are relative to the gateway base URL. The token endpoint is owned
by the OAuth module.
"""

# Plant & Device Endpoints
PLANT_LIST = "/openapi/platform/queryPowerStationList"
DEVICE_LIST = "/openapi/platform/getDeviceListByPsId"
DEVICE_REALTIME_DATA = "/openapi/platform/getDeviceRealTimeData"
