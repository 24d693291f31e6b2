from django import forms
from django.contrib.auth import get_user_model


class SignupForm(forms.Form):
    username = forms.CharField(max_length=150)
    email = forms.EmailField()
    password = forms.CharField(strip=False)

    def clean(self):
        cleaned = super().clean()
        username = cleaned.get("username")
        email = cleaned.get("email")
        User = get_user_model()
        if username and User.objects.filter(username__iexact=username).exists():
            raise forms.ValidationError("User already exists")
        if email and User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("User already exists")
        return cleaned


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(strip=False)


class CreateRoomForm(forms.Form):
    guiding_question = forms.CharField(max_length=1000)
    password = forms.CharField(strip=False)


class JoinRoomForm(forms.Form):
    password = forms.CharField(strip=False)


class ConclusionForm(forms.Form):
    # Stored verbatim once accepted
    conclusion = forms.CharField(max_length=10000, strip=False)

    def clean_conclusion(self):
        value = self.cleaned_data["conclusion"]
        if not value.strip():
            raise forms.ValidationError("Conclusion cannot be empty")
        return value


class ChatMessageForm(forms.Form):
    message = forms.CharField(max_length=4000, strip=False)

    def clean_message(self):
        value = self.cleaned_data["message"]
        if not value.strip():
            raise forms.ValidationError("Message cannot be empty")
        return value
