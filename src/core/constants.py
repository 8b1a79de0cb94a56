import struct

# -------- Archive (data.acd) layout --------
ACD_FILENAME = "data.acd"
DATA_DIRNAME = "data"
DLC_MARKER = b'\xA9\xFB\xFF\xFF'
DLC_HEADER_SIZE = 8
LEN_STRUCT = struct.Struct('<I')       # u32 length prefix for names and payloads
PAYLOAD_GROUP_SIZE = 4                 # every plaintext byte is stored as [c, 0, 0, 0]
MIN_KEY_FOLDER_NAME_LEN = 5

# Pack id (4 bytes following DLC_MARKER) -> pack name
DLC_PACK_IDS = {
    b'\x91\x46\x0A\x00': 'DreamPack1',
    b'\xFD\xEA\x0D\x00': 'DreamPack2',
    b'\xB1\xEB\x0B\x00': 'DreamPack3',
    b'\x87\xB7\x03\x00': 'JapaneseCarPack',
    b'\x35\x57\x0B\x00': 'RedPack',
    b'\x91\xC7\x04\x00': 'TRIPL3Pack',
    b'\xA1\x09\x0E\x00': 'PorschePack1',
    b'\x3F\xC0\x0C\x00': 'PorschePack2',
    b'\xF2\x05\x09\x00': 'PorschePack3',
    b'\xBF\xE4\x07\x00': 'ReadytoRace',
    b'\xDA\xEB\x0D\x00': 'FerrariPack',
}

# -------- KVS (ini) --------
TOP_LEVEL_SECTION = "topLevel"
COMMENT_SYMBOLS = (';', '#')

# -------- Authoring tool version thresholds --------
LEGACY_SANDBOX_VERSION_LIMIT = 2111220000     # below: legacy, at/above: 4.2
ELLISBURY_SANDBOX_VERSION_NUM = 2312150000
COAST_V2_VERSION_NUM = 2209220000
COAST_V3_VERSION_NUM = 2301100000
FIRST_AL_RIMA_VERSION_NUM = 2412240000
EXPORT_RESPONSIVENESS_VERSION_NUM = 2507110000
LEGACY_CAR_FILE_VERSION_LIMIT = 2200000000

# -------- Fabrication --------
NA_ASPIRATION_PREFIX = "Aspiration_Natural"
SUPERCHARGER_ASPIRATION_PREFIXES = ("Aspiration_Supercharger", "Aspiration_Twin_Charged")
NO_OPTION_PREFIX = "NoOption_Name"
ENGINE_JBEAM_KEY_PREFIX = "Camso_Engine_"
INERTIA_MIN = 0.04
INERTIA_MAX = 0.8
INERTIA_AT_ZERO_RESPONSE = 0.32
INERTIA_AT_FULL_RESPONSE = 0.07
MAX_FLOW_FALLBACK_FRACTION = 0.70
DIRECT_EXPORT_MAX_FLOW_FALLBACK = 50
CLUTCH_TORQUE_HEADROOM = 30
CLUTCH_TORQUE_MULTIPLE = 50
AUTOSHIFT_UP_PERCENT = 97
AUTOSHIFT_DOWN_PERCENT = 70

# -------- Crate engines --------
CRATE_ENGINE_SUFFIX = "eng"
CRATE_ENGINE_SIZE_LIMIT = 104857600
