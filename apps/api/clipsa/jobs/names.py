"""Registered job names; these strings travel inside relay envelopes."""

START_VIDEO_GENERATION = "start-video-generation"
PROCESS_SCENE_VIDEO = "process-scene-video"
PROCESS_AUDIO = "process-audio"
PROCESS_IMAGE = "process-image"
STITCH_VIDEO = "stitch-video"
