"""Collectors that read system statistics and produce metric values."""