# mediasend/tools/__init__.py
"""
mediasend tools package

Exports the integration surface that host applications and the CLI use:
  - MediaSender              (from .media_sender)
  - build_payload            (from .delivery)
  - DelayedTask / schedule_cleanup (from .delivery)

Core building blocks (cache, acquirer, batch) should be imported from
`mediasend.core` directly.
"""

from __future__ import annotations

from .delivery import DelayedTask, build_payload, schedule_cleanup
from .media_sender import MediaSender

__all__ = ["MediaSender", "build_payload", "DelayedTask", "schedule_cleanup"]
