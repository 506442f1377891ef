"""Application modules.

This package contains the feature modules of the ingestion client:
- upload: Upload descriptors, direct uploads, multipart temp uploads, progress
- trim: Trim range selection and timecodes
- conversion: Conversion trigger, status client and poller
- media: ffprobe metadata, orientation and resolution
- pipeline: Orchestration and message presentation
"""
