"""
Authz serializers for doctors and the caller profile.
"""
from rest_framework import serializers
from apps.authz.models import Doctor, User


class DoctorSerializer(serializers.ModelSerializer):
    """
    Doctor profile.

    Used for:
    - Listing doctors (reception picks one when creating a visit)
    - Admin create/update
    """
    user_email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Doctor
        fields = [
            'id',
            'user',
            'user_email',
            'display_name',
            'specialty',
            'medical_system_number',
            'phone',
            'address',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_user(self, value):
        if self.instance is None and Doctor.objects.filter(user=value).exists():
            raise serializers.ValidationError(
                f"User {value.email} already has a doctor profile"
            )
        return value


class DoctorProfileUpdateSerializer(serializers.ModelSerializer):
    """Fields a doctor may edit on their own profile (printed on prescriptions)."""

    class Meta:
        model = Doctor
        fields = ['display_name', 'specialty', 'medical_system_number', 'phone', 'address']


class MeSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()
    doctor = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'roles', 'doctor']
        read_only_fields = fields

    def get_roles(self, obj):
        return sorted(obj.role_names)

    def get_doctor(self, obj):
        doctor = Doctor.objects.filter(user=obj).first()
        if doctor is None:
            return None
        return DoctorSerializer(doctor).data
