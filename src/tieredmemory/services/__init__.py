"""Engine services, each provided through a scitrera-app-framework plugin."""
