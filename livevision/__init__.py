"""Live capture and multimodal analysis session manager.

Points a camera or a shared screen at a scene, optionally takes a dictated
question, freezes one frame and sends it with the question to an external
analysis service.
"""

__version__ = "0.1.0"
