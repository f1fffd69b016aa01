# ksysguard_nvsmi/config.py
from __future__ import annotations

import os

# *** How to override at runtime:
# export KSG_NVSMI_BINARY=/opt/nvidia/bin/nvidia-smi
# export KSG_NVSMI_REFRESH_SEC=5      # many GPUs → slower nvidia-smi
# export KSG_NVSMI_LOG_LEVEL=DEBUG    # logs go to stderr, stdout is the protocol

NVIDIA_SMI = os.getenv("KSG_NVSMI_BINARY", "/usr/bin/nvidia-smi")
REFRESH_SECONDS = float(os.getenv("KSG_NVSMI_REFRESH_SEC", 2))
LOG_LEVEL = os.getenv("KSG_NVSMI_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = "%(asctime)s  %(levelname)s %(message)s"
