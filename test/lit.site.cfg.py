import os
import shutil

# Get the test directory and project directory dynamically
script_dir = os.path.dirname(os.path.abspath(__file__))
project_dir = os.path.dirname(script_dir)

config.retracer_dir = project_dir

# Find retracer dynamically
if shutil.which('retracer'):
    config.retracer = shutil.which('retracer')
elif os.path.exists(os.path.join(project_dir, 'venv', 'bin', 'retracer')):
    config.retracer = os.path.join(project_dir, 'venv', 'bin', 'retracer')
else:
    config.retracer = None

# Load the main config
lit_config.load_config(config, os.path.join(script_dir, "lit.cfg.py"))
