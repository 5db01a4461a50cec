"""Landmark detection backends."""

from tryon.backends.mediapipe_mesh import MediaPipeFaceMeshBackend

__all__ = ["MediaPipeFaceMeshBackend"]
