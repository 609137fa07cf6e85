"""Jinja2 sources for the named customer emails."""

_STYLE = """
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background-color: #1f3a5f; color: white; padding: 20px; text-align: center; }
        .summary { background-color: #f8f9fa; border: 1px solid #dee2e6; padding: 20px; margin: 20px 0; }
        .total { font-size: 28px; color: #1e7b34; font-weight: bold; }
        .row { padding: 6px 0; border-bottom: 1px solid #eee; }
        .footer { font-size: 12px; color: #666; margin-top: 30px; }
    </style>
"""

_FOOTER = """
        <div class="footer">
            <p>{{ company_name }} | {{ company_phone }} | {{ company_website }}</p>
        </div>
"""

QUOTE_HTML = """<!DOCTYPE html>
<html>
<head>""" + _STYLE + """</head>
<body>
    <div class="container">
        <div class="header"><h1>Your Custom Window Quote</h1></div>
        <p>Dear {{ customer_name | default('Valued Customer') }},</p>
        <p>Thank you for requesting a quote. Here is a summary of your project:</p>
        <div class="summary">
            {% for line in lines %}
            <div class="row">
                {{ line.quantity }} x {{ line.width }}" x {{ line.height }}"
                {{ line.window_type }} ({{ line.material }}, {{ line.brand }}):
                <strong>${{ "%.2f" | format(line.total_price) }}</strong>
            </div>
            {% endfor %}
            <div class="row">Windows: {{ total_quantity }}</div>
            <div class="row">Installation: ${{ "%.2f" | format(total_labor) }}</div>
            <div class="row">Tax: ${{ "%.2f" | format(total_tax) }}</div>
            <div class="total">${{ "%.2f" | format(final_total) }}</div>
            {% if minimum_applied %}
            <div>Includes our minimum order of ${{ "%.2f" | format(minimum_order_value) }}.</div>
            {% endif %}
        </div>
        {% if explanation %}<p>{{ explanation }}</p>{% endif %}
        <p>This quote is valid for {{ valid_days }} days. Reply to this email or call us to
        schedule a free in-home consultation.</p>
""" + _FOOTER + """
    </div>
</body>
</html>
"""

QUOTE_TEXT = """Dear {{ customer_name | default('Valued Customer') }},

Thank you for requesting a quote. Project summary:
{% for line in lines %}
- {{ line.quantity }} x {{ line.width }}" x {{ line.height }}" {{ line.window_type }} ({{ line.material }}, {{ line.brand }}): ${{ "%.2f" | format(line.total_price) }}
{% endfor %}
Installation: ${{ "%.2f" | format(total_labor) }}
Tax: ${{ "%.2f" | format(total_tax) }}
Total: ${{ "%.2f" | format(final_total) }}

This quote is valid for {{ valid_days }} days.

{{ company_name }} | {{ company_phone }}
"""

ANALYSIS_HTML = """<!DOCTYPE html>
<html>
<head>""" + _STYLE + """</head>
<body>
    <div class="container">
        <div class="header"><h1>Your Window Analysis</h1></div>
        <p>Hi {{ customer_name | default('there') }},</p>
        <p>We analyzed the photo you uploaded:</p>
        <div class="summary">
            <div class="row">Window type: {{ window_type }}</div>
            <div class="row">Material: {{ material }}</div>
            <div class="row">Condition: {{ condition }}</div>
            {% if estimated_width and estimated_height %}
            <div class="row">Estimated size: {{ estimated_width }}" x {{ estimated_height }}"</div>
            {% endif %}
        </div>
        {% if recommendations %}
        <p>Our recommendations:</p>
        <ul>{% for item in recommendations %}<li>{{ item }}</li>{% endfor %}</ul>
        {% endif %}
""" + _FOOTER + """
    </div>
</body>
</html>
"""

ANALYSIS_TEXT = """Hi {{ customer_name | default('there') }},

We analyzed the photo you uploaded.
Window type: {{ window_type }}
Material: {{ material }}
Condition: {{ condition }}
{% for item in recommendations %}- {{ item }}
{% endfor %}
{{ company_name }} | {{ company_phone }}
"""

APPOINTMENT_HTML = """<!DOCTYPE html>
<html>
<head>""" + _STYLE + """</head>
<body>
    <div class="container">
        <div class="header"><h1>Appointment Confirmed</h1></div>
        <p>Hi {{ customer_name | default('there') }},</p>
        <p>Your consultation is booked for <strong>{{ appointment_time | default('the time we discussed') }}</strong>
        {% if address %}at {{ address }}{% endif %}.</p>
        <p>If you need to reschedule, call us at {{ company_phone }}.</p>
""" + _FOOTER + """
    </div>
</body>
</html>
"""

APPOINTMENT_TEXT = """Hi {{ customer_name | default('there') }},

Your consultation is booked for {{ appointment_time | default('the time we discussed') }}{% if address %} at {{ address }}{% endif %}.
To reschedule, call {{ company_phone }}.
"""

FOLLOW_UP_HTML = """<!DOCTYPE html>
<html>
<head>""" + _STYLE + """</head>
<body>
    <div class="container">
        <div class="header"><h1>Following Up</h1></div>
        <p>Hi {{ customer_name | default('there') }},</p>
        <p>We wanted to check in on your window project. {{ message | default('Do you have any questions about your quote?') }}</p>
        <p>Call us at {{ company_phone }} or reply to this email.</p>
""" + _FOOTER + """
    </div>
</body>
</html>
"""

FOLLOW_UP_TEXT = """Hi {{ customer_name | default('there') }},

We wanted to check in on your window project. {{ message | default('Do you have any questions about your quote?') }}
Call us at {{ company_phone }} or reply to this email.
"""

WELCOME_HTML = """<!DOCTYPE html>
<html>
<head>""" + _STYLE + """</head>
<body>
    <div class="container">
        <div class="header"><h1>Welcome to {{ company_name }}</h1></div>
        <p>Hi {{ customer_name | default('there') }},</p>
        <p>Thanks for reaching out. You can get an instant estimate any time on our website,
        and our team will contact you shortly.</p>
""" + _FOOTER + """
    </div>
</body>
</html>
"""

WELCOME_TEXT = """Hi {{ customer_name | default('there') }},

Thanks for reaching out to {{ company_name }}. Our team will contact you shortly.
"""
