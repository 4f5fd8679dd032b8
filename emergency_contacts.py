_GENERAL = "General Emergency"
_SERVICES = "Emergency Services"
_POLICE = "Police"
_AMBULANCE = "Ambulance"
_FIRE = "Fire"

_PFA = "Police, fire and ambulance"
_POLICE_DEPT = "Police department"
_FIRE_DEPT = "Fire department"
_MEDICAL = "Medical emergency"
_MEDICAL_FIRE = "Medical and fire emergency"


def _c(name: str, number: str, description: str) -> dict:
    return {"name": name, "number": number, "description": description}


EMERGENCY_CONTACTS = {
    "US": [
        _c(_SERVICES, "911", _PFA),
        _c("Poison Control", "1-800-222-1222", "Poison control center"),
        _c("Crisis Hotline", "988", "Suicide and crisis lifeline"),
    ],
    "GB": [
        _c(_SERVICES, "999", _PFA),
        _c("NHS Non-urgent", "111", "Non-urgent medical advice"),
    ],
    "IN": [_c(_GENERAL, "112", _PFA), _c(_POLICE, "100", _POLICE_DEPT), _c(_AMBULANCE, "102", _MEDICAL)],
    "PK": [_c(_POLICE, "15", _POLICE_DEPT), _c(_FIRE, "16", _FIRE_DEPT), _c(_AMBULANCE, "115", _MEDICAL)],
    "EG": [_c(_POLICE, "122", _POLICE_DEPT), _c(_AMBULANCE, "123", _MEDICAL), _c(_FIRE, "180", _FIRE_DEPT)],
    "DZ": [_c(_GENERAL, "112", _PFA), _c(_POLICE, "17", _POLICE_DEPT), _c(_AMBULANCE, "14", _MEDICAL_FIRE)],
    "AU": [_c(_SERVICES, "000", _PFA)],
    "SG": [_c(_POLICE, "999", _POLICE_DEPT), _c(_AMBULANCE, "995", _MEDICAL_FIRE)],
    "IQ": [_c(_GENERAL, "112", _PFA)],
    "SA": [_c(_GENERAL, "911", _PFA)],
    "ID": [_c(_POLICE, "110", _POLICE_DEPT), _c(_AMBULANCE, "118", _MEDICAL), _c(_FIRE, "113", _FIRE_DEPT)],
    "BR": [_c(_POLICE, "190", _POLICE_DEPT), _c(_AMBULANCE, "192", _MEDICAL), _c(_FIRE, "193", _FIRE_DEPT)],
    "JP": [_c(_POLICE, "110", _POLICE_DEPT), _c(_AMBULANCE, "119", _MEDICAL_FIRE)],
    "CN": [_c(_POLICE, "110", _POLICE_DEPT), _c(_AMBULANCE, "120", _MEDICAL), _c(_FIRE, "119", _FIRE_DEPT)],
    "MA": [_c(_POLICE, "19", _POLICE_DEPT), _c(_AMBULANCE, "15", _MEDICAL_FIRE)],
    "SY": [_c(_POLICE, "112", _POLICE_DEPT), _c(_AMBULANCE, "110", _MEDICAL), _c(_FIRE, "113", _FIRE_DEPT)],
    "PS": [_c(_POLICE, "100", _POLICE_DEPT), _c(_AMBULANCE, "101", _MEDICAL), _c("Civil Defense", "102", "Civil defense")],
    "ZA": [_c(_POLICE, "10111", _POLICE_DEPT), _c(_AMBULANCE, "10177", _MEDICAL_FIRE)],
    "NZ": [_c(_SERVICES, "111", _PFA)],
    "EU": [_c(_GENERAL, "112", _PFA)],
    "default": [_c(_GENERAL, "112", _PFA), _c(_GENERAL, "911", _PFA), _c(_GENERAL, "000", _PFA)],
}


def contacts_for(country: str) -> tuple:
    """Return (resolved country code, contacts); unknown codes fall back to ``default``."""
    code = (country or "").strip().upper()
    if code in EMERGENCY_CONTACTS and code != "DEFAULT":
        return code, EMERGENCY_CONTACTS[code]
    return "default", EMERGENCY_CONTACTS["default"]
