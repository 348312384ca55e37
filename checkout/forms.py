from django import forms

from contracts.presenter import is_signature_image


class ContactInfoForm(forms.Form):
    """
    Contact step fields. Every field is optional here so the page can save
    as the visitor types; the wizard enforces the required ones on Next.
    """
    name = forms.CharField(max_length=200, required=False, label="Full Name")
    email = forms.EmailField(max_length=254, required=False)
    phone = forms.CharField(max_length=40, required=False)
    company = forms.CharField(max_length=200, required=False)
    country = forms.CharField(max_length=100, required=False)
    street_address = forms.CharField(max_length=255, required=False, label="Street Address")
    flat_suite_unit = forms.CharField(max_length=100, required=False, label="Flat / Suite / Unit")
    town_city = forms.CharField(max_length=100, required=False, label="Town / City")
    state_county = forms.CharField(max_length=100, required=False, label="State / County")
    postcode_zip = forms.CharField(max_length=20, required=False, label="Postcode / ZIP")
    discord_username = forms.CharField(max_length=100, required=False, label="Discord Username")

    def submitted_fields(self):
        """Cleaned values of the fields present in the request, leaving the others untouched."""
        return {name: value for name, value in self.cleaned_data.items() if name in self.data}


class SignatureForm(forms.Form):
    signature = forms.CharField(required=False, strip=False)
    contract_accepted = forms.BooleanField(required=False)

    def clean_signature(self):
        signature = self.cleaned_data['signature']
        if signature and not is_signature_image(signature):
            raise forms.ValidationError("Signature must be a PNG, JPEG or WebP image.")
        return signature

    def submitted_fields(self):
        return {name: value for name, value in self.cleaned_data.items() if name in self.data}


class PaymentResultForm(forms.Form):
    PROVIDER_CHOICES = [('stripe', 'Stripe'), ('paypal', 'PayPal')]

    paymentId = forms.CharField(max_length=255)
    paymentProvider = forms.ChoiceField(choices=PROVIDER_CHOICES)
    paymentIntentId = forms.CharField(max_length=255, required=False)
    orderId = forms.CharField(max_length=255, required=False)
