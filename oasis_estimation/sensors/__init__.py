################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from oasis_estimation.sensors.imu.imu_sensor import ImuSensor
from oasis_estimation.sensors.imu.imu_types import ImuMeasurement
from oasis_estimation.sensors.imu.imu_types import ImuNoiseParams
from oasis_estimation.sensors.pose.pose_sensor import PoseSensor
from oasis_estimation.sensors.pose.pose_types import PoseMeasurement
from oasis_estimation.sensors.pose.pose_types import PoseSensorState
from oasis_estimation.sensors.position.position_sensor import PositionSensor
from oasis_estimation.sensors.position.position_types import PositionMeasurement
from oasis_estimation.sensors.position.position_types import PositionSensorState
from oasis_estimation.sensors.pressure.pressure_sensor import PressureSensor
from oasis_estimation.sensors.pressure.pressure_types import PressureMeasurement
from oasis_estimation.sensors.pressure.pressure_types import PressureSensorState
from oasis_estimation.sensors.sensor_interface import PropagationSensor
from oasis_estimation.sensors.sensor_interface import SensorBase
from oasis_estimation.sensors.sensor_interface import UpdateSensor


__all__ = [
    "ImuMeasurement",
    "ImuNoiseParams",
    "ImuSensor",
    "PoseMeasurement",
    "PoseSensor",
    "PoseSensorState",
    "PositionMeasurement",
    "PositionSensor",
    "PositionSensorState",
    "PressureMeasurement",
    "PressureSensor",
    "PressureSensorState",
    "PropagationSensor",
    "SensorBase",
    "UpdateSensor",
]
