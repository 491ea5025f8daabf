"""Infrastructure components for the mock interviewer.

This module contains the concrete collaborators behind the interview
service interfaces: Google speech services, the Vertex AI client and the
feedback/transcript stores. Import from the submodules directly; speech
modules need the Google Cloud speech libraries and PyAudio at call time.
"""
