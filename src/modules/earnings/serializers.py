from rest_framework import serializers


class EarningsBucketSerializer(serializers.Serializer):
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class DailyTotalSerializer(serializers.Serializer):
    day = serializers.DateField()
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class EarningsSummarySerializer(serializers.Serializer):
    today = EarningsBucketSerializer()
    week = EarningsBucketSerializer()
    month = EarningsBucketSerializer()
    all_time = EarningsBucketSerializer()
    daily = DailyTotalSerializer(many=True)
