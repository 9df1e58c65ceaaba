import uuid
import aiofiles
from pathlib import Path
from typing import Optional, Dict, Any
from fastapi import UploadFile, HTTPException, status
from PIL import Image
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

class FileUploadService:
    """Receipt image storage on local disk"""

    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_PATH)
        
        self.allowed_image_types = {
            "image/jpeg", "image/jpg", "image/png", "image/webp", 
            "image/gif", "image/bmp", "image/tiff"
        }
        self.image_extensions = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff"}
        self.max_image_size = settings.MAX_RECEIPT_SIZE
        
    def create_upload_dirs(self, entity_type: str) -> Path:
        """Create upload directories if they don't exist"""
        dir_path = self.upload_dir / "images" / entity_type
        dir_path.mkdir(parents=True, exist_ok=True)
        return dir_path
    
    def is_image(self, file: UploadFile) -> bool:
        if file.content_type:
            return file.content_type in self.allowed_image_types
        return Path(file.filename or "").suffix.lower() in self.image_extensions
    
    def validate_file(self, file: UploadFile) -> int:
        """Validate receipt type and size, return file size"""
        if not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No filename provided"
            )
        
        if not self.is_image(file):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only image files are allowed"
            )
        
        # Get file size
        file.file.seek(0, 2)  # Seek to end
        file_size = file.file.tell()
        file.file.seek(0)  # Reset to beginning
        
        if file_size > self.max_image_size:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Image size too large. Max: {self.max_image_size // (1024*1024)}MB"
            )
        
        return file_size
    
    async def save_receipt(self, file: UploadFile, entity_type: str = "salaries") -> Dict[str, Any]:
        """Save receipt image and return its stored-file descriptor"""
        file_size = self.validate_file(file)
        target_dir = self.create_upload_dirs(entity_type)
        
        # Generate unique filename
        original_filename = file.filename
        file_extension = Path(original_filename).suffix.lower()
        unique_filename = f"salary-{uuid.uuid4().hex}{file_extension}"
        file_path = target_dir / unique_filename
        
        try:
            content = await file.read()
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(content)
            
            await self._optimize_image(file_path)
            
            return {
                "file_name": unique_filename,
                "original_name": original_filename,
                "file_path": file_path.as_posix(),
                "file_size": file_size,
                "mime_type": file.content_type,
            }
            
        except Exception as e:
            logger.error(f"Error saving receipt: {e}")
            if file_path.exists():
                file_path.unlink()  # Clean up on error
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save file"
            )
    
    async def _optimize_image(self, file_path: Path):
        """Optimize image size and quality"""
        try:
            with Image.open(file_path) as img:
                img.load()
                if img.mode == 'RGBA' and file_path.suffix.lower() in ('.jpg', '.jpeg'):
                    img = img.convert('RGB')
                
                # Resize if too large
                max_dimension = 1600
                if max(img.size) > max_dimension:
                    img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
                
                if file_path.suffix.lower() in ['.jpg', '.jpeg', '.webp']:
                    img.save(file_path, optimize=True, quality=85)
                else:
                    img.save(file_path, optimize=True)
                
        except Exception as e:
            logger.error(f"Error optimizing image: {e}")
            # Don't raise error, just log it
 
    def delete_file(self, file_path: Optional[str]) -> bool:
        """Best-effort delete of a stored receipt; failures are logged only"""
        if not file_path:
            return False
        try:
            full_path = Path(file_path)
            
            # Security check: ensure file is within the upload directory
            if self.upload_dir.resolve() not in full_path.resolve().parents:
                logger.warning(f"Attempted to delete file outside upload directory: {file_path}")
                return False
            
            if full_path.exists() and full_path.is_file():
                full_path.unlink()
                logger.info(f"Successfully deleted file: {file_path}")
                return True
            else:
                logger.warning(f"File not found: {file_path}")
                return False
                
        except Exception as e:
            logger.error(f"Error deleting file {file_path}: {e}")
            return False

    def delete_receipt(self, receipt: Optional[Dict[str, Any]]) -> bool:
        if not receipt:
            return False
        return self.delete_file(receipt.get("file_path"))
