DEVICE_NAME = "SmartGlove"

# Standard descriptor UUIDs
UUID_USER_DESCRIPTION = "00002901-0000-1000-8000-00805f9b34fb"
UUID_PRESENTATION_FORMAT = "00002904-0000-1000-8000-00805f9b34fb"

# Services exposed by the glove firmware
UUID_BATTERY_SERVICE = "0000180f-0000-1000-8000-00805f9b34fb"
UUID_ENVIRONMENTAL_SERVICE = "0000181a-0000-1000-8000-00805f9b34fb"
UUID_LIGHT_SERVICE = "0000054d-0000-1000-8000-00805f9b34fb"
UUID_IMU_SERVICE = "606a0692-1e69-422a-9f73-de87d239aade"
UUID_MAGNETIC_SERVICE = "7749eb1b-2b16-4d32-8422-e792dae7adb8"

SUPPORTED_SERVICES = {
    UUID_BATTERY_SERVICE: "Battery",
    UUID_ENVIRONMENTAL_SERVICE: "Environmental Sensor",
    UUID_LIGHT_SERVICE: "Light Sensor",
    UUID_IMU_SERVICE: "Inertial Measurement Unit",
    UUID_MAGNETIC_SERVICE: "Magnetic Field Sensor",
}

DEFAULT_LOG_PERIOD_MS = 1000
DEFAULT_LOG_FILENAME = "log.csv"
