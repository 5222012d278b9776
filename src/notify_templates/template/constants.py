"""Defaults, presets and the reserved placeholder vocabulary."""

from __future__ import annotations

from notify_templates.template.models import Theme

DEFAULT_CUSTOM_TEMPLATE_HTML = """\
<div style="font-family: {{fontFamily}}; color: {{textColor}}; max-width: 600px; margin: 0 auto;">
  <!-- Header -->
  <div style="background-color: {{primaryColor}}; padding: 20px; color: white; border-radius: 8px 8px 0 0;">
    <h1 style="margin: 0; font-size: 24px;">{{organizationName}}</h1>
    <p style="margin: 5px 0 0 0; opacity: 0.9;">{{notificationName}}</p>
  </div>

  <!-- Body -->
  <div style="padding: 25px; border: 1px solid {{borderColor}}; border-top: none; background-color: {{backgroundColor}};">
    <p style="color: {{mutedTextColor}}; font-size: 13px; margin-bottom: 20px;">
      <strong>Reporting Period:</strong> {{dateRangeStart}} - {{dateRangeEnd}}
    </p>

    {{statisticsHtml}}

    <p style="font-size: 16px; margin: 20px 0;">
      We found <strong>{{recordCount}}</strong> new records matching your subscription.
    </p>

    {{downloadButton}}

    {{dataTable}}

    {{moreRecordsMessage}}

    <div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid {{borderColor}}; font-size: 12px; color: {{mutedTextColor}};">
      <p>You are receiving this because you subscribed to notifications.</p>
      <p><a href="#" style="color: {{accentColor}};">Manage Preferences</a></p>
    </div>
  </div>
</div>"""

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "CAD": "CA$",
    "AUD": "A$",
    "JPY": "¥",
    "CNY": "CN¥",
    "INR": "₹",
    "MXN": "MX$",
    "BRL": "R$",
}

DATE_FORMAT_PRESETS: tuple[str, ...] = (
    "MM/DD/YYYY",
    "DD/MM/YYYY",
    "MMMM D, YYYY",
    "MMM D, YYYY",
    "MMMM YYYY",
    "MMM YYYY",
    "YYYY-MM-DD",
    "dddd, MMMM D",
)

THEME_PRESETS: dict[str, Theme] = {
    "Default Blue": Theme(),
    "Forest Green": Theme(
        primary_color="#2D5A3D",
        secondary_color="#E8F5E9",
        accent_color="#4CAF50",
        text_color="#1B5E20",
        muted_text_color="#558B2F",
        border_color="#C8E6C9",
    ),
    "Sunset Orange": Theme(
        primary_color="#E65100",
        secondary_color="#FFF3E0",
        accent_color="#FF9800",
        text_color="#BF360C",
        muted_text_color="#E65100",
        border_color="#FFCC80",
    ),
    "Royal Purple": Theme(
        primary_color="#4A148C",
        secondary_color="#F3E5F5",
        accent_color="#9C27B0",
        text_color="#4A148C",
        muted_text_color="#7B1FA2",
        border_color="#CE93D8",
    ),
    "Slate Gray": Theme(
        primary_color="#37474F",
        secondary_color="#ECEFF1",
        accent_color="#607D8B",
        text_color="#263238",
        muted_text_color="#546E7A",
        border_color="#B0BEC5",
    ),
}

THEME_COLOR_TOKENS: tuple[str, ...] = (
    "primaryColor",
    "secondaryColor",
    "accentColor",
    "textColor",
    "mutedTextColor",
    "backgroundColor",
    "borderColor",
)

# name -> description, grouped the way the designer's reference panel lists them
PLACEHOLDER_SECTIONS: dict[str, dict[str, str]] = {
    "Organization & Notification": {
        "organizationName": "Organization display name",
        "organizationId": "Organization ID",
        "notificationName": "Notification display name",
        "notificationId": "Notification ID",
    },
    "Record Data": {
        "recordCount": "Number of records found",
        "dataTable": "Pre-built HTML table of the first records",
        "moreRecordsMessage": '"Showing X of Y" message when more records exist',
    },
    "Date Range": {
        "dateRangeStart": "Start date (MM/DD/YYYY)",
        "dateRangeEnd": "End date (MM/DD/YYYY)",
        "dateRangeStartTime": "Start with time (MM/DD/YYYY HH:mm)",
        "dateRangeEndTime": "End with time (MM/DD/YYYY HH:mm)",
    },
    "Downloads": {
        "downloadButton": "Pre-styled download button HTML",
        "downloadUrl": "Raw CSV download URL",
    },
    "Statistics": {
        "statisticsHtml": "Pre-built statistics cards display",
    },
    "Branding": {
        "logoHtml": "Logo image configured in branding",
    },
    "Theme": {
        "primaryColor": "Primary theme color",
        "secondaryColor": "Secondary theme color",
        "accentColor": "Accent color",
        "textColor": "Text color",
        "mutedTextColor": "Muted text color",
        "backgroundColor": "Background color",
        "borderColor": "Border color",
        "fontFamily": "Font family",
        "fontSize": "Base font size",
        "headerFontSize": "Header font size",
        "subHeaderFontSize": "Sub-header font size",
        "borderRadius": "Corner radius",
    },
    "Custom Text": {
        "emailIntro": "Custom intro text from basic settings",
        "emailZeroStateMessage": "Message shown when 0 records found",
    },
}

STATIC_PLACEHOLDERS: frozenset[str] = frozenset(
    name for section in PLACEHOLDER_SECTIONS.values() for name in section
)

# Statistic ids may not shadow any fixed placeholder.
RESERVED_STAT_IDS: frozenset[str] = STATIC_PLACEHOLDERS

SUPPLEMENTAL_PALETTE: tuple[str, ...] = (
    "#F4A261",
    "#2A9D8F",
    "#E76F51",
    "#8E7DBE",
    "#E9C46A",
    "#264653",
    "#D62828",
    "#6A994E",
)

MAX_STAT_ID_LENGTH = 30
