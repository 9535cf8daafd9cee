# Directory Feature - Service

from typing import Dict, Iterable
from bson import ObjectId
from beanie.operators import In
from carechat.features.directory.models import Patient, Lab, Phlebotomist
from carechat.features.messages.models import ChatRole


class DirectoryService:
    """Resolves account ids to display names for conversation lists."""

    @staticmethod
    async def display_names(role: ChatRole, ids: Iterable[str]) -> Dict[str, str]:
        """
        Map account ids of one role to their display names.

        Unknown or malformed ids are left out of the result.
        """
        object_ids = list({ObjectId(i) for i in ids if i and ObjectId.is_valid(i)})
        if not object_ids:
            return {}

        if role == ChatRole.PATIENT:
            patients = await Patient.find(In(Patient.id, object_ids)).to_list()
            return {str(p.id): p.full_name for p in patients}
        if role == ChatRole.LAB:
            labs = await Lab.find(In(Lab.id, object_ids)).to_list()
            return {str(lab.id): lab.lab_name for lab in labs}
        if role == ChatRole.PHLEBOTOMIST:
            phlebotomists = await Phlebotomist.find(In(Phlebotomist.id, object_ids)).to_list()
            return {str(p.id): p.full_name for p in phlebotomists}
        raise ValueError(f"Unhandled chat role: {role}")
