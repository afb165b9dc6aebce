# Command routes of the local backend bridge; update if the bridge changes.

BASE_URL = "http://127.0.0.1:8787"

SESSION = {
    "connect": {
        "method": "POST",
        "path": "/invoke/cmd_connect",
    },
    "logout": {
        "method": "POST",
        "path": "/invoke/cmd_logout",
    },
    "clean_cache": {
        "method": "POST",
        "path": "/invoke/cmd_clean_cache",
    },
}

FOLDERS = {
    "scan": {
        "method": "POST",
        "path": "/invoke/cmd_scan_folders",
    },
    "create": {
        "method": "POST",
        "path": "/invoke/cmd_create_folder",
    },
    "delete": {
        "method": "POST",
        "path": "/invoke/cmd_delete_folder",
    },
}

FILES = {
    "list": {
        "method": "POST",
        "path": "/invoke/cmd_get_files",
    },
    "upload": {
        "method": "POST",
        "path": "/invoke/cmd_upload_file",
    },
    "download": {
        "method": "POST",
        "path": "/invoke/cmd_download_file",
    },
    "delete": {
        "method": "POST",
        "path": "/invoke/cmd_delete_file",
    },
    "move": {
        "method": "POST",
        "path": "/invoke/cmd_move_files",
    },
    "search": {
        "method": "POST",
        "path": "/invoke/cmd_search_global",
    },
}

STATUS = {
    "network": {
        "method": "POST",
        "path": "/invoke/cmd_is_network_available",
    },
    "bandwidth": {
        "method": "POST",
        "path": "/invoke/cmd_get_bandwidth",
    },
}
