from rest_framework import serializers

from backoffice.core.models import User
from backoffice.parties.models import Worker
from .models import Tool, ToolMovement, ToolBooking, ToolWish


def display_name(user):
    if user is None:
        return None
    return user.get_full_name() or user.username


class ToolSerializer(serializers.ModelSerializer):
    assigned_to_name = serializers.SerializerMethodField()
    borrowed_by_name = serializers.SerializerMethodField()
    borrowed_for_name = serializers.CharField(source='borrowed_for.name', read_only=True)
    is_defective = serializers.BooleanField(read_only=True)

    class Meta:
        model = Tool
        fields = [
            'id', 'name', 'serial_number', 'description', 'location', 'purchase_date',
            'status', 'condition', 'is_defective',
            'assigned_to', 'assigned_to_name',
            'borrowed_by', 'borrowed_by_name', 'borrowed_for', 'borrowed_for_name', 'borrowed_at', 'due_date',
            'created_at', 'updated_at'
        ]
        # Status and holders only change through the lifecycle actions
        read_only_fields = [
            'status', 'assigned_to', 'borrowed_by', 'borrowed_for', 'borrowed_at', 'due_date',
            'created_at', 'updated_at'
        ]

    def get_assigned_to_name(self, obj):
        return display_name(obj.assigned_to)

    def get_borrowed_by_name(self, obj):
        return display_name(obj.borrowed_by)

    def validate_condition(self, value):
        if self.instance is not None and value != self.instance.condition \
                and self.instance.status != Tool.STATUS_AVAILABLE:
            raise serializers.ValidationError("Condition can only be edited while the tool is available.")
        return value


class ToolMovementSerializer(serializers.ModelSerializer):
    holder_name = serializers.SerializerMethodField()
    performed_by_name = serializers.SerializerMethodField()
    worker_name = serializers.CharField(source='worker.name', read_only=True)

    class Meta:
        model = ToolMovement
        fields = [
            'id', 'tool', 'action', 'from_status', 'to_status', 'condition',
            'holder', 'holder_name', 'worker', 'worker_name', 'performed_by', 'performed_by_name',
            'notes', 'created_at'
        ]

    def get_holder_name(self, obj):
        return display_name(obj.holder)

    def get_performed_by_name(self, obj):
        return display_name(obj.performed_by)


class ConditionSerializer(serializers.Serializer):
    """Payload for recall and return"""
    condition = serializers.ChoiceField(choices=Tool.CONDITION_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AssignSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CheckOutSerializer(serializers.Serializer):
    borrower = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True), required=False)
    worker = serializers.PrimaryKeyRelatedField(queryset=Worker.objects.all(), required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class ToolBookingSerializer(serializers.ModelSerializer):
    tools = serializers.PrimaryKeyRelatedField(queryset=Tool.objects.all(), many=True)
    tool_names = serializers.SerializerMethodField()
    requested_by_name = serializers.SerializerMethodField()
    requested_for_name = serializers.CharField(source='requested_for.name', read_only=True)
    reviewed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ToolBooking
        fields = [
            'id', 'tools', 'tool_names', 'requested_by', 'requested_by_name', 'requested_for', 'requested_for_name',
            'booking_type', 'start_date', 'end_date', 'notes', 'status',
            'reviewed_by', 'reviewed_by_name', 'reviewed_at', 'rejection_reason', 'created_at'
        ]
        read_only_fields = ['requested_by', 'status', 'reviewed_by', 'reviewed_at', 'rejection_reason', 'created_at']

    def get_tool_names(self, obj):
        return [tool.name for tool in obj.tools.all()]

    def get_requested_by_name(self, obj):
        return display_name(obj.requested_by)

    def get_reviewed_by_name(self, obj):
        return display_name(obj.reviewed_by)

    def validate_tools(self, value):
        if not value:
            raise serializers.ValidationError("Please select at least one tool.")
        unavailable = [tool.name for tool in value if tool.status != Tool.STATUS_AVAILABLE]
        if unavailable:
            raise serializers.ValidationError(f"Not available: {', '.join(unavailable)}")
        return value

    def validate(self, attrs):
        if self.instance is not None:
            raise serializers.ValidationError("Bookings can not be edited once submitted.")
        if attrs.get('requested_for') is None:
            raise serializers.ValidationError({'requested_for': 'Please select the worker this tool is for.'})
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if attrs.get('booking_type', ToolBooking.TYPE_BORROW) == ToolBooking.TYPE_BORROW:
            if not start or not end:
                raise serializers.ValidationError({'date_range': 'Date range is required for borrowing.'})
        if start and end and start > end:
            raise serializers.ValidationError({'date_range': 'End date must be on or after the start date.'})
        return attrs


class BookingReviewSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ToolWishSerializer(serializers.ModelSerializer):
    requested_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ToolWish
        fields = ['id', 'tool_name', 'reason', 'requested_by', 'requested_by_name', 'status', 'created_tool',
                  'created_at', 'updated_at']
        read_only_fields = ['requested_by', 'status', 'created_tool', 'created_at', 'updated_at']

    def get_requested_by_name(self, obj):
        return display_name(obj.requested_by)

    def validate_tool_name(self, value):
        value = value.strip()
        if len(value) < 3:
            raise serializers.ValidationError("Tool name must be at least 3 characters long.")
        return value


class ToolWishStatusSerializer(serializers.Serializer):
    """Approving with create_tool adds the wished tool to the inventory"""
    status = serializers.ChoiceField(choices=ToolWish.STATUS_CHOICES)
    create_tool = serializers.BooleanField(required=False, default=False)
    serial_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs['create_tool'] and attrs['status'] != ToolWish.STATUS_APPROVED:
            raise serializers.ValidationError({'create_tool': 'A tool can only be created for an approved wish.'})
        serial_number = attrs.get('serial_number')
        if attrs['create_tool'] and serial_number and Tool.objects.filter(serial_number=serial_number).exists():
            raise serializers.ValidationError({'serial_number': 'A tool with this serial number already exists.'})
        return attrs
