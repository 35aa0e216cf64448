"""Blood group and donation kind enums."""

from enum import Enum


class BloodGroup(str, Enum):
    """ABO/Rh blood groups."""

    O_NEGATIVE = "O-"
    O_POSITIVE = "O+"
    A_NEGATIVE = "A-"
    A_POSITIVE = "A+"
    B_NEGATIVE = "B-"
    B_POSITIVE = "B+"
    AB_NEGATIVE = "AB-"
    AB_POSITIVE = "AB+"


class DonationKind(str, Enum):
    """What is being donated."""

    BLOOD = "blood"
    PLASMA = "plasma"


BLOOD_GROUP_VALUES = [group.value for group in BloodGroup]
