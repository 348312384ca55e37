# contracts/contract_data.py
#
# Static advisory agreements shown when the backend has no active template.
# Placeholders are filled by contracts.presenter.render_static_contract:
# {customer_name} {contract_date} {price} {monthly_installment}
# {hourly_rate} {site_url} {disclaimer_url}

INTRO = (
    '<p>This contract is made and entered into as of the <span class="contract-field">{contract_date}</span> '
    'by and between Eagle Investors LLC, an investment adviser (the "Adviser"), and '
    '<span class="contract-field">{customer_name}</span>, the "Client."</p>'
)

BILLING_PARAGRAPHS = """
    <p>Fees are to be billed to clients via either Stripe or PayPal (online payment processors) only through a secure checkout process. The firm does not deduct fees from clients' assets at any time. Clients will only be billed on a monthly basis.</p>
    <p>Fees are to be collected via either Stripe or PayPal (online payment processors) only through a secure checkout process on <a href="{site_url}">{site_url}</a>.</p>
    <p>In light of CCR Section 260.238(j) - Investment Advisers: Fair, equitable and ethical principles, Eagle Investors LLC charges a fair and reasonable fee for the services provided. Lower fees for comparable services may be available from other sources. Fees are non-negotiable.</p>
"""

NON_DISCRETIONARY_PARAGRAPHS = """
    <p>Eagle Investors LLC's investment advice is non-discretionary as the firm does not make investment decisions on the client's behalf. Rather, the firm provides impersonal recommendations and guidance, leaving the final decision-making process and execution to the client.</p>
    <p>We do not currently participate in any Wrap Fee Programs.</p>
    <p>Currently, we do not have regulatory assets under management, and we do not expect to maintain client assets under management.</p>
"""

NON_NEGOTIABLE = '<p>All fees are non-negotiable, in accordance with CCR Section 260.238(j).</p>'

# Clauses 4-15, shared by every advisory agreement. Variants may replace
# the content of a clause by its key.
COMMON_CLAUSES = [
    {
        'key': 'disclosures',
        'heading': '4. Acceptance of Disclosures',
        'content': '<p>The Client acknowledges the review and acceptance of the additional disclosures related to fiduciary duty, options and leverage trading risks, impersonal investment advice, individual financial guidance, advisor positions, paper or simulated trades, no guarantees, code of ethics and compliance as well as questions and contact information always available online at <a href="{disclaimer_url}">{disclaimer_url}</a></p>',
    },
    {
        'key': 'form_adv',
        'heading': '5. Form ADV Acknowledgement',
        'content': """
            <p>Client acknowledges receipt of Form ADV Part 2A &amp; 2B prior to signing this agreement; a disclosure statement containing the equivalent information; or a disclosure statement containing at least the information required by Part 2A Appendix 1 of Form ADV, if the client is entering into a wrap fee program sponsored by the investment adviser.</p>
            <p>If the appropriate disclosure statement was not delivered to the client at least 48 hours prior to the client entering into any written or oral advisory contract with this investment adviser, then the client has the right to terminate the contract without penalty within five business days after entering into the contract.</p>
        """,
    },
    {
        'key': 'refunds',
        'heading': '6. Refund Policy',
        'content': """
            <p>In the event of termination of this contract by either party or nonperformance by the Adviser, the Adviser shall refund to the Client a prorated portion of any prepaid fees for services not yet rendered.</p>
            <p>Processing Fees:</p>
            <ul>
                <li>Stripe: 2.9% + $0.30 per transaction</li>
                <li>PayPal: 3.49% + $0.49 per transaction, plus up to an additional 2% fee on refunds</li>
            </ul>
            <p>Eagle Investors LLC may, at its sole discretion, waive or modify the Subscription Fee for any Subscriber.</p>
            <p>Clients are entitled to a full refund within five business days if the Form ADV was not provided 48 hours prior to signing this agreement, as per California Code of Regulation, Section 260.235.4(c).</p>
        """,
    },
    {
        'key': 'discretion',
        'heading': '7. Discretionary Authority',
        'content': '<p>This contract does not grant discretionary authority to the Adviser or its representatives. The Client retains full control over all investment decisions and trade executions.</p>',
    },
    {
        'key': 'assignment',
        'heading': '8. Assignment',
        'content': '<p>This contract may not be assigned by the Adviser without the prior written consent of the Client.</p>',
    },
    {
        'key': 'permission',
        'heading': '9. Client Permission',
        'content': "<p>The Adviser will never affect transactions for the client in the client's broker-dealer account(s).</p>",
    },
    {
        'key': 'control',
        'heading': '10. Change in Control',
        'content': '<p>The Adviser will inform the client of any significant changes in ownership, management, or business operations within 3 months via written communication.</p>',
    },
    {
        'key': 'conflicts',
        'heading': '11. Conflict of Interest',
        'content': """
            <p>Eagle Investors LLC follows strict ethics and compliance policies. It does not earn performance-based compensation and does not provide personalized investment advice. All investment recommendations are impersonal and general in nature.</p>
            <p>Eagle Investors LLC and Eagle Guardian Advisors LLC are affiliated but legally distinct entities under common ownership. While they share leadership, including Ishaan K. Sandhir and Maikel Den Hertog, no referral fees, commissions, or compensation arrangements exist between Eagle Investors and Eagle Guardian Advisors for client referrals or engagements.</p>
            <p>Eagle Guardian Advisors LLC is a state-registered investment adviser (RIA) that provides fiduciary portfolio management and financial planning services through a separate engagement. All advisory services involving asset management, financial planning, or fiduciary obligations are conducted solely through Eagle Guardian Advisors LLC, with custody of client assets held at independent custodians such as Charles Schwab, Interactive Brokers, or other qualified institutions.</p>
            <p>Clients referred by Eagle Investors are under no obligation to engage Eagle Guardian Advisors. Any references to estate planning professionals, tax professionals, or other third-party service providers are for educational purposes only and are entirely optional.</p>
            <p>Additionally, Ishaan K. Sandhir serves on the board of directors of 501(c)(3) nonprofit organizations that are independently operated and unaffiliated with either Eagle Investors LLC or Eagle Guardian Advisors LLC.</p>
        """,
    },
    {
        'key': 'termination',
        'heading': '12. Termination',
        'content': '<p>This contract may be terminated at any time by either party with written notice.</p>',
    },
    {
        'key': 'governing_law',
        'heading': '13. Governing Law',
        'content': '<p>This contract is governed by the laws of California, Texas, Virginia, New Jersey, New York, and Indiana.</p>',
    },
    {
        'key': 'entire_agreement',
        'heading': '14. Entire Agreement',
        'content': '<p>This document constitutes the full agreement between the parties.</p>',
    },
    {
        'key': 'amendment',
        'heading': '15. Amendment',
        'content': '<p>Amendments must be made in writing and signed by both parties.</p>',
    },
]

ADVISER_SIGNATORY = [
    'Eagle Investors LLC',
    'By: Ishaan K Sandhir',
    'Chief Compliance Officer',
    'Eagle Investors',
    'Eagle Horizon Ventures',
]

CONTRACT_DATA = {
    'diamond': {
        'title': 'Advisory Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>Eagle Investors will provide investment research and financial guidance regarding options, stock, digital assets, and cryptocurrency trading to Diamond Subscribers ("Subscribers") via the internet and through the firm's online platform. This includes:</p>
                    <ul>
                        <li>Access to the Diamond community and live market commentary</li>
                        <li>Proprietary trade alerts with entry and exit parameters</li>
                        <li>Fundamental and technical analysis of featured positions</li>
                        <li>Weekly watch lists and educational sessions</li>
                    </ul>
                """ + NON_DISCRETIONARY_PARAGRAPHS,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract shall commence on <span class="contract-field">{contract_date}</span> and shall renew on a monthly basis, unless sooner terminated as provided herein.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': '<p>The Fee will be <strong>${price} monthly</strong> for the Diamond subscription. The fee includes access to the Diamond community, trade alerts and market analysis.</p>' + BILLING_PARAGRAPHS,
            },
        ],
    },
    'infinity': {
        'title': 'Advisory Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>Eagle Investors will provide investment research and financial guidance regarding options, stock, digital assets, and cryptocurrency trading to Infinity Subscribers ("Subscribers") via the internet and through the firm's online platform. This includes:</p>
                    <ul>
                        <li>Everything included in the Diamond membership</li>
                        <li>Full access to the AI Advisory panel for quantitative and fundamental analysis</li>
                        <li>Access to Eagle's Trading Systems, a collection of proprietary trading strategies</li>
                        <li>The complete education curriculum and priority support</li>
                    </ul>
                """ + NON_DISCRETIONARY_PARAGRAPHS,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract shall commence on <span class="contract-field">{contract_date}</span> and shall renew on a monthly basis, unless sooner terminated as provided herein.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': '<p>The Fee will be <strong>${price} monthly</strong> for the Infinity subscription. The fee includes every Diamond benefit together with the AI Advisory panel and trading systems.</p>' + BILLING_PARAGRAPHS,
            },
        ],
    },
    'basic': {
        'title': 'Advisory Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>Eagle Investors will provide basic investment research and financial guidance regarding options, stock, digital assets, and cryptocurrency trading to Basic Subscribers ("Subscribers") via the internet and through the firm's online platform.</p>
                    <p>This basic membership provides access to educational content and general market insights. No personalized investment advice is provided.</p>
                """ + NON_DISCRETIONARY_PARAGRAPHS,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract shall commence on <span class="contract-field">{contract_date}</span> and shall renew on a monthly basis, unless sooner terminated as provided herein.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': '<p>The Fee will be <strong>$35 monthly</strong> for the basic subscription. The fee includes access to basic educational content and general market insights.</p>' + BILLING_PARAGRAPHS,
            },
        ],
    },
    'investment-advising': {
        'title': 'Investment Advising Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>The Adviser will provide personalized investment advisory services to the Client, including but not limited to:</p>
                    <ul>
                        <li>Individual portfolio review and analysis</li>
                        <li>Investment strategy development</li>
                        <li>Asset allocation recommendations</li>
                        <li>Risk assessment and management</li>
                        <li>Retirement planning guidance</li>
                        <li>Educational resources on investment principles</li>
                        <li>Regular portfolio review sessions</li>
                    </ul>
                    <p>The Adviser will provide these services based on the Client's financial situation, goals, and risk tolerance. The Adviser will not have discretionary authority over the Client's accounts and will not execute trades on the Client's behalf.</p>
                """,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract shall commence on <span class="contract-field">{contract_date}</span> and shall continue for a term of 12 months, unless sooner terminated as provided herein.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': '<p>The Client agrees to pay the Adviser ${price} per year for the investment advisory services described in this contract. This fee may be paid in full at the commencement of the contract or in monthly installments of ${monthly_installment} per month.</p>' + NON_NEGOTIABLE,
            },
        ],
        'clauses': {
            'refunds': '<p>If the Client terminates this contract before the end of the 12-month term, the Client may be eligible for a prorated refund of fees paid for services not yet rendered, less any payment processing fees. No refund will be issued for services already provided.</p>',
            'discretion': "<p>The Adviser does not have discretionary authority over the Client's assets. The Client is solely responsible for implementing any recommendations provided by the Adviser.</p>",
        },
    },
    'script': {
        'title': 'Advisory Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>Eagle Investors LLC agrees to provide access to a proprietary custom quantitative trading script built using PineScript and delivered via the TradingView platform. This script includes:</p>
                    <ul>
                        <li>Real-time algorithmic buy/sell signals</li>
                        <li>Advanced technical indicators</li>
                        <li>Multi-timeframe analysis tools</li>
                        <li>Custom momentum-based algorithmic signals</li>
                        <li>A comprehensive user guide for interpretation and application</li>
                    </ul>
                    <p>The script is made available via TradingView invite-only access. Eagle Investors rigorously tests the script's logic, but it is provided strictly for informational and educational purposes only. It is not tailored to individual financial circumstances, and Eagle Investors does not manage client accounts or execute trades.</p>
                """,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract begins on <span class="contract-field">{contract_date}</span> and renews monthly unless canceled by the client through their member dashboard or written notice. Access to the script will be revoked at the end of the billing cycle if canceled or if payment fails.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': """
                    <p>Subscription Fee: $47/month (recurring)</p>
                    <p>The subscription is billed monthly via Stripe or PayPal through <a href="{site_url}">{site_url}</a></p>
                    <p>The subscription is standalone and not bundled with any other Eagle Investors service, including but not limited to Diamond, Infinity, or mentorship products.</p>
                """,
            },
        ],
        'clauses': {
            'refunds': """
                <p>Due to the nature of digital and algorithmic intellectual property, Eagle Investors LLC does not offer refunds for this product once access has been granted to the script on TradingView.</p>
                <p>If access has not yet been provided, clients may request a full refund within 5 business days of purchase.</p>
            """,
            'discretion': '<p>Eagle Investors LLC will not manage, trade, or execute any securities or crypto transactions on behalf of the client. All signals are impersonal and non-binding.</p>',
        },
    },
    'trading-tutor': {
        'title': 'Advisory Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>Eagle Investors will provide personalized trading strategy guidance through online voice and video calls to one-time fee-based Clients via the internet. This includes:</p>
                    <ul>
                        <li>3 hours of 1-on-1 trading tutoring sessions</li>
                        <li>3 months of Diamond Membership (includes platform access)</li>
                        <li>Education in day trading, swing trading, and options</li>
                        <li>Tuning of trading strategy and market timing</li>
                        <li>Active risk management techniques</li>
                        <li>Technical analysis mastery</li>
                        <li>Psychology of trading and entry/exit strategy development</li>
                    </ul>
                    <p>The firm does not exercise discretion or custody of client funds and does not manage accounts. All investment recommendations are non-discretionary and the client retains full control over execution and implementation.</p>
                """,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract shall commence on <span class="contract-field">{contract_date}</span> and is billed as a one-time charge, unless sooner terminated as provided herein.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': """
                    <p>Total Fee: $987 (Includes ${price} for 3 hours of 1-on-1 tutoring + $201 value for 3-month Diamond access)</p>
                    <p>Member Discounted Price: ${price} (applies only to current Diamond subscribers)</p>
                    <p>Hourly Breakdown: ${price} &divide; 3 hours = ${hourly_rate}/hour</p>
                    <p>Fees are billed via Stripe or PayPal through a secure checkout process on <a href="{site_url}">{site_url}</a>.</p>
                """ + NON_NEGOTIABLE,
            },
        ],
        'clauses': {
            'refunds': """
                <p>If the Adviser materially fails to deliver services within 1 year, a prorated refund may be issued:</p>
                <p>Refund Amount = ((Total Hours Paid &ndash; Hours Delivered) &times; $262/hour) &ndash; Processing Fees</p>
                <p>Processing Fees:</p>
                <ul>
                    <li>Stripe Fees: 2.9% + $0.30</li>
                    <li>PayPal Fees: 3.49% + $0.49, plus up to 2% for refund reversal</li>
                </ul>
                <p>Refunds will not be issued for any portion of the service already delivered. Clients are eligible for a full refund within five business days if the ADV was not provided at least 48 hours before contract execution.</p>
            """,
        },
    },
    'ultimate': {
        'title': 'Advisory Contract',
        'sections': [
            {
                'heading': '1. Services to be Provided',
                'content': """
                    <p>The Adviser will provide the following services to the Client:</p>
                    <ul>
                        <li>Ultimate Membership Access to Eagle Investors Discord Server</li>
                        <li>Access to proprietary trading alerts and signals</li>
                        <li>Access to fundamental and technical analysis</li>
                        <li>Access to options flow analysis and indicators</li>
                        <li>Educational content on investing strategies and market analysis</li>
                        <li>Access to community forums and discussions</li>
                        <li>Priority customer support</li>
                        <li>Access to all community trade signals, with position sizing and clear entry/exit parameters</li>
                        <li>Full access to the AI Advisory panel, which provides quantitative and fundamental analysis</li>
                        <li>Access to weekly watch lists</li>
                        <li>Access to Eagle's Trading Systems, a collection of proprietary trading strategies</li>
                    </ul>
                    <p>The firm does not provide individualized investment advice and does not have discretion over client funds.</p>
                """,
            },
            {
                'heading': '2. Term of the Contract',
                'content': '<p>This contract shall commence on <span class="contract-field">{contract_date}</span> and shall continue month-to-month until terminated as provided herein. The Ultimate Membership is billed at ${price} per month.</p>',
            },
            {
                'heading': '3. Fee Schedule',
                'content': '<p>The Client agrees to pay the Adviser ${price} per month for the Ultimate Membership. Fees are billed on a recurring monthly basis through the payment processor selected by the Client.</p>' + NON_NEGOTIABLE,
            },
        ],
        'clauses': {
            'refunds': "<p>No refunds are issued for subscription payments for services already provided. If a refund is necessary due to duplication or if the Adviser materially fails to deliver the services, a refund may be issued at the Adviser's discretion, less any payment processing fees.</p>",
            'discretion': "<p>The Adviser does not have discretionary authority over the Client's assets. The Client is solely responsible for implementing any recommendations or signals provided by the Adviser.</p>",
        },
    },
    'service-agreement': {
        'title': 'Service Agreement',
        'intro': '<p>By subscribing to our {product_name}, you agree to the following terms:</p>',
        'include_common_clauses': False,
        'sections': [
            {
                'heading': '',
                'content': """
                    <ul>
                        <li>Monthly subscription fee of ${price} will be charged automatically</li>
                        <li>Access to all trading scripts and AI-powered tools</li>
                        <li>24/7 customer support and regular updates</li>
                        <li>30-day money-back guarantee for new subscribers</li>
                        <li>You may cancel your subscription at any time</li>
                        <li>All trading involves risk - past performance doesn't guarantee future results</li>
                    </ul>
                    <p>For complete terms and conditions, please visit our website.</p>
                """,
            },
        ],
    },
}
