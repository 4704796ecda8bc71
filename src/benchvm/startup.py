"""
Startup script attached to every benchmark instance.

The script runs once at boot, installs sysbench, stress-ng and fio, runs
each of them with fixed parameters and sends all output to
BENCHMARK_LOG_PATH on the instance's boot disk.
"""

BENCHMARK_LOG_PATH = "/var/log/startupscript.log"

# Last line the script prints; its presence means every benchmark finished
COMPLETION_MARKER = "Fio disk test completed!"

# Metadata key Compute Engine runs on boot
STARTUP_SCRIPT_KEY = "startup-script"

STARTUP_SCRIPT = """#!/bin/bash
set -x
exec > /var/log/startupscript.log 2>&1
# Update and install necessary packages
sudo apt-get update
sudo apt-get install -y sysbench stress-ng fio
# Run Sysbench CPU test
echo "Running Sysbench CPU test..."
sysbench cpu --cpu-max-prime=20000 run
echo "Sysbench CPU test completed!"
# Run Stress-ng
echo "Running Stress-ng..."
stress-ng --cpu 4 --timeout 60 --metrics-brief
echo "Stress-ng test completed!"
# Run the fio benchmarking tool
echo "Running Fio disk test..."
fio --name=random-write --ioengine=posixaio --rw=randwrite --bs=4k --size=4g \
--numjobs=1 --runtime=60 --time_based --end_fsync=1
echo "Fio disk test completed!"
"""
