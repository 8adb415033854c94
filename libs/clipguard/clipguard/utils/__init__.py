"""Shared helpers (subprocess, ffmpeg resolution, logging)."""
