from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiModel(CamelModel):
    success: bool = True


class UploadResponse(ApiModel):
    message: str = "Video uploaded successfully!"
    url: str
    file_name: str
    file_size: int
    content_type: str
    timestamp: int


class VideoEntry(BaseModel):
    key: str
    size: int
    uploaded: datetime
    url: str


class VideoListResponse(ApiModel):
    videos: list[VideoEntry]
    total: int


class HealthResponse(ApiModel):
    status: str = "OK"
    message: str
    timestamp: datetime
    platform: str


class ConfigResponse(ApiModel):
    max_file_size: str
    allowed_types: list[str]
    features: list[str]
    adsterra_link: str
    r2_configured: bool


class BucketObject(BaseModel):
    key: str
    size: int


class BucketInfo(CamelModel):
    name: str
    total_objects: int
    objects: list[BucketObject]


class StorageCheckResponse(ApiModel):
    message: str = "Storage connection successful"
    bucket_info: BucketInfo
