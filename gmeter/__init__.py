"""
gmeter — real-time lateral / longitudinal G-meter with G-drop warning

Modules
-------
exceptions     Error hierarchy
config         Tunable constants and GMeterConfig
sensor_driver  Sample types, UART packet decode, CSV replay
calibration    Zero-point (gravity) capture
axes           Device frame -> vehicle frame mapping
estimator      EMA smoothing, peak tracking, slip detection, pipeline
display        Ball position and text formatting helpers
gmeter         Console application
dashboard      Matplotlib live dashboard
"""
