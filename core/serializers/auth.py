from rest_framework import serializers

class LoginSerializer(serializers.Serializer):
    # username or email
    username = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField()

    def validate(self, attrs):
        identifier = (attrs.get('username') or attrs.get('email') or '').strip()
        if not identifier:
            raise serializers.ValidationError({'username': 'El usuario o correo es obligatorio'})
        attrs['identifier'] = identifier
        return attrs

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('La contraseña es obligatoria')
        return v

class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()

class SetPasswordSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    password = serializers.CharField(min_length=8, max_length=128)

class ConfirmationEmailSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=150)
    confirmationUrl = serializers.URLField(max_length=1000)
