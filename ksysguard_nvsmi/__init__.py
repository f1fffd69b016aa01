"""ksysguard_nvsmi
KSysGuard sensor daemon (`ksysguardd` protocol) backed by `nvidia-smi`.

Point KSysGuard at it via File → Monitor Remote Machine, connection type
"Custom command", command ``ksysguard-nvsmi serve``.
"""

__version__ = "0.1.0"
