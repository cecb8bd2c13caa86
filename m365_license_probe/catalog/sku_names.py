"""
SKU catalog — maps product codes (skuPartNumber) to the display names shown
as channel labels.
"""

from __future__ import annotations

# Product code -> display name.
SKU_FRIENDLY_NAMES: dict[str, str] = {
    # Office 365
    "STANDARDPACK": "OFFICE 365 E1",
    "STANDARDWOFFPACK": "OFFICE 365 E2",
    "ENTERPRISEPACK": "OFFICE 365 E3",
    "DEVELOPERPACK": "OFFICE 365 E3 DEVELOPER",
    "ENTERPRISEWITHSCAL": "OFFICE 365 E4",
    "ENTERPRISEPREMIUM": "OFFICE 365 E5",
    "ENTERPRISEPREMIUM_NOPSTNCONF": "OFFICE 365 E5 WITHOUT AUDIO CONFERENCING",
    "DESKLESSPACK": "OFFICE 365 F3",
    "STANDARDPACK_STUDENT": "OFFICE 365 A1 FOR STUDENTS",
    "STANDARDWOFFPACK_STUDENT": "OFFICE 365 A1 PLUS FOR STUDENTS",
    "STANDARDWOFFPACK_FACULTY": "OFFICE 365 A1 FOR FACULTY",
    "ENTERPRISEPACKPLUS_FACULTY": "OFFICE 365 A3 FOR FACULTY",
    "ENTERPRISEPACKPLUS_STUDENT": "OFFICE 365 A3 FOR STUDENTS",
    "OFFICESUBSCRIPTION": "MICROSOFT 365 APPS FOR ENTERPRISE",
    "O365_BUSINESS": "MICROSOFT 365 APPS FOR BUSINESS",
    "O365_BUSINESS_ESSENTIALS": "MICROSOFT 365 BUSINESS BASIC",
    "O365_BUSINESS_PREMIUM": "MICROSOFT 365 BUSINESS STANDARD",
    "SMB_BUSINESS_ESSENTIALS": "MICROSOFT 365 BUSINESS BASIC",
    "SMB_BUSINESS_PREMIUM": "MICROSOFT 365 BUSINESS STANDARD",
    "SPB": "MICROSOFT 365 BUSINESS PREMIUM",
    # Microsoft 365
    "SPE_E3": "MICROSOFT 365 E3",
    "SPE_E5": "MICROSOFT 365 E5",
    "SPE_F1": "MICROSOFT 365 F3",
    "M365_F1": "MICROSOFT 365 F1",
    "SPE_E3_USGOV_DOD": "MICROSOFT 365 E3 (DOD)",
    "IDENTITY_THREAT_PROTECTION": "MICROSOFT 365 E5 SECURITY",
    "INFORMATION_PROTECTION_COMPLIANCE": "MICROSOFT 365 E5 COMPLIANCE",
    "M365EDU_A3_FACULTY": "MICROSOFT 365 A3 FOR FACULTY",
    "M365EDU_A3_STUDENT": "MICROSOFT 365 A3 FOR STUDENTS",
    "M365EDU_A5_FACULTY": "MICROSOFT 365 A5 FOR FACULTY",
    "M365EDU_A5_STUDENT": "MICROSOFT 365 A5 FOR STUDENTS",
    # Exchange
    "EXCHANGESTANDARD": "EXCHANGE ONLINE (PLAN 1)",
    "EXCHANGEENTERPRISE": "EXCHANGE ONLINE (PLAN 2)",
    "EXCHANGEARCHIVE": "EXCHANGE ONLINE ARCHIVING FOR EXCHANGE SERVER",
    "EXCHANGEARCHIVE_ADDON": "EXCHANGE ONLINE ARCHIVING FOR EXCHANGE ONLINE",
    "EXCHANGEDESKLESS": "EXCHANGE ONLINE KIOSK",
    "EXCHANGEESSENTIALS": "EXCHANGE ONLINE ESSENTIALS",
    "EXCHANGE_S_ESSENTIALS": "EXCHANGE ONLINE ESSENTIALS",
    "EOP_ENTERPRISE": "EXCHANGE ONLINE PROTECTION",
    "ATP_ENTERPRISE": "DEFENDER FOR OFFICE 365 (PLAN 1)",
    "THREAT_INTELLIGENCE": "DEFENDER FOR OFFICE 365 (PLAN 2)",
    # SharePoint / Teams / Skype
    "SHAREPOINTSTANDARD": "SHAREPOINT ONLINE (PLAN 1)",
    "SHAREPOINTENTERPRISE": "SHAREPOINT ONLINE (PLAN 2)",
    "SHAREPOINTSTORAGE": "OFFICE 365 EXTRA FILE STORAGE",
    "WACONEDRIVESTANDARD": "ONEDRIVE FOR BUSINESS (PLAN 1)",
    "WACONEDRIVEENTERPRISE": "ONEDRIVE FOR BUSINESS (PLAN 2)",
    "TEAMS_EXPLORATORY": "MICROSOFT TEAMS EXPLORATORY",
    "TEAMS_FREE": "MICROSOFT TEAMS (FREE)",
    "TEAMS_COMMERCIAL_TRIAL": "MICROSOFT TEAMS COMMERCIAL CLOUD TRIAL",
    "Microsoft_Teams_Premium": "MICROSOFT TEAMS PREMIUM",
    "MCOSTANDARD": "SKYPE FOR BUSINESS ONLINE (PLAN 2)",
    "MCOMEETADV": "MICROSOFT 365 AUDIO CONFERENCING",
    "MCOEV": "MICROSOFT TEAMS PHONE STANDARD",
    "MCOPSTN1": "DOMESTIC CALLING PLAN",
    "MCOPSTN2": "DOMESTIC AND INTERNATIONAL CALLING PLAN",
    "PHONESYSTEM_VIRTUALUSER": "TEAMS PHONE RESOURCE ACCOUNT",
    "MEETING_ROOM": "MICROSOFT TEAMS ROOMS STANDARD",
    # Identity / security
    "AAD_BASIC": "AZURE ACTIVE DIRECTORY BASIC",
    "AAD_PREMIUM": "ENTRA ID P1",
    "AAD_PREMIUM_P2": "ENTRA ID P2",
    "EMS": "ENTERPRISE MOBILITY + SECURITY E3",
    "EMSPREMIUM": "ENTERPRISE MOBILITY + SECURITY E5",
    "EMS_E3": "ENTERPRISE MOBILITY + SECURITY E3",
    "EMS_E5": "ENTERPRISE MOBILITY + SECURITY E5",
    "INTUNE_A": "INTUNE PLAN 1",
    "INTUNE_A_D": "INTUNE PLAN 1 FOR EDUCATION",
    "RIGHTSMANAGEMENT": "AZURE INFORMATION PROTECTION PLAN 1",
    "RIGHTSMANAGEMENT_ADHOC": "RIGHTS MANAGEMENT ADHOC",
    "ATA": "DEFENDER FOR IDENTITY",
    "WIN_DEF_ATP": "DEFENDER FOR ENDPOINT",
    "MDATP_XPLAT": "DEFENDER FOR ENDPOINT P2 CROSS-PLATFORM",
    # Power Platform
    "POWER_BI_STANDARD": "POWER BI (FREE)",
    "POWER_BI_PRO": "POWER BI PRO",
    "PBI_PREMIUM_PER_USER": "POWER BI PREMIUM PER USER",
    "FLOW_FREE": "POWER AUTOMATE (FREE)",
    "FLOW_PER_USER": "POWER AUTOMATE PER USER PLAN",
    "POWERAPPS_VIRAL": "POWER APPS PLAN 2 TRIAL",
    "POWERAPPS_PER_USER": "POWER APPS PER USER PLAN",
    "POWERAPPS_DEV": "POWER APPS FOR DEVELOPER",
    # Project / Visio
    "PROJECTESSENTIALS": "PROJECT ONLINE ESSENTIALS",
    "PROJECTPROFESSIONAL": "PROJECT PLAN 3",
    "PROJECTPREMIUM": "PROJECT PLAN 5",
    "PROJECT_P1": "PROJECT PLAN 1",
    "VISIOONLINE_PLAN1": "VISIO PLAN 1",
    "VISIOCLIENT": "VISIO PLAN 2",
    # Dynamics / misc
    "DYN365_ENTERPRISE_PLAN1": "DYNAMICS 365 CUSTOMER ENGAGEMENT PLAN",
    "DYN365_ENTERPRISE_SALES": "DYNAMICS 365 SALES ENTERPRISE",
    "DYN365_BUSCENTRAL_ESSENTIAL": "DYNAMICS 365 BUSINESS CENTRAL ESSENTIALS",
    "CCIBOTS_PRIVPREV_VIRAL": "COPILOT STUDIO VIRAL TRIAL",
    "Microsoft_365_Copilot": "MICROSOFT 365 COPILOT",
    "STREAM": "MICROSOFT STREAM",
    "WINDOWS_STORE": "WINDOWS STORE FOR BUSINESS",
    "WIN10_VDA_E3": "WINDOWS 10/11 ENTERPRISE E3",
    "WIN10_VDA_E5": "WINDOWS 10/11 ENTERPRISE E5",
    "MICROSOFT_BUSINESS_CENTER": "MICROSOFT BUSINESS CENTER",
    "LITEPACK": "OFFICE 365 SMALL BUSINESS",
    "LITEPACK_P2": "OFFICE 365 SMALL BUSINESS PREMIUM",
    "YAMMER_ENTERPRISE": "VIVA ENGAGE ENTERPRISE",
    "PROJECTONLINE_PLAN_1": "PROJECT ONLINE PREMIUM WITHOUT PROJECT CLIENT",
    "RMSBASIC": "RIGHTS MANAGEMENT SERVICE BASIC CONTENT PROTECTION",
}


UNNAMED_SKU = "UNNAMED SKU"


def strip_prefix(sku_id: str) -> str:
    """Drop the ``tenant:`` namespace (everything up to the first colon)."""
    _, sep, code = sku_id.partition(":")
    return code if sep else sku_id


def resolve(sku_id: str) -> str:
    """
    Display name for a SKU id.

    Falls back to the bare product code when the catalog has no entry, and
    to the id itself when stripping leaves nothing.  Never returns an empty
    string.
    """
    code = strip_prefix(sku_id)
    if not code:
        return sku_id or UNNAMED_SKU
    return SKU_FRIENDLY_NAMES.get(code, code)
