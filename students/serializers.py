from rest_framework import serializers


class StudentRowSerializer(serializers.Serializer):
    # code and name are checked per row so one bad line does not sink the batch
    student_code = serializers.CharField(required=False, allow_blank=True, default="")
    full_name = serializers.CharField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    class_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    birth_date = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    gender = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")


class ProvisionRequestSerializer(serializers.Serializer):
    classId = serializers.IntegerField()
    students = StudentRowSerializer(many=True)


class ProvisionErrorSerializer(serializers.Serializer):
    student_code = serializers.CharField()
    error = serializers.CharField()


class ProvisionResultSerializer(serializers.Serializer):
    created = serializers.IntegerField()
    skipped = serializers.IntegerField()
    added_to_class = serializers.IntegerField()
    errors = ProvisionErrorSerializer(many=True)
