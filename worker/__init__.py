"""
Transcription workflow components
"""
